from decimal import Decimal
from itertools import count

from main.models import Package, PackageComponent, Product, User

_seq = count(1)


def make_user(role=User.RoleChoices.CASHIER, **kwargs):
    n = next(_seq)
    defaults = {
        "first_name": f"User{n}",
        "last_name": role.title(),
        "email": f"user{n}@bar.test",
        "role": role,
    }
    defaults.update(kwargs)
    return User.objects.create(**defaults)


def make_product(name=None, stock="0", reorder_point="0", **kwargs):
    n = next(_seq)
    return Product.objects.create(
        name=name or f"Product {n}",
        sku=kwargs.pop("sku", f"SKU-{n}"),
        current_stock=Decimal(stock),
        reorder_point=Decimal(reorder_point),
        **kwargs
    )


def make_package(name=None, components=(), base_price="1000.00", **kwargs):
    """components: iterable of (product, required_quantity)"""
    n = next(_seq)
    package = Package.objects.create(
        package_code=kwargs.pop("package_code", f"PKG-{n}"),
        name=name or f"Package {n}",
        base_price=Decimal(base_price),
        **kwargs
    )
    for order, (product, quantity) in enumerate(components):
        PackageComponent.objects.create(
            package=package, product=product, quantity=Decimal(str(quantity)), display_order=order
        )
    return package
