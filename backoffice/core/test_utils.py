"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from backoffice.core.models import Setting
from backoffice.locations.models import StockLocation
from backoffice.catalog.models import Category, Brand, Product, ProductVariant
from backoffice.parties.models import Supplier
from backoffice.inventory.models import InventoryItem
from backoffice.purchasing.models import PurchaseOrder, PurchaseOrderItem
from backoffice.orders.models import Order, OrderItem, OrderPayment
from backoffice.promotions.models import Coupon
from backoffice.finance.models import ExpenseCategory, PettyCash, BankAccount, SupplierInvoice
from decimal import Decimal
from django.db.models import Sum
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_setting(key, value):
        setting, _ = Setting.objects.update_or_create(key=key, defaults={'value': str(value)})
        return setting

    @staticmethod
    def create_location(name=None, code=None, location_type='store'):
        """Create a test stock location"""
        if not name:
            name = f'Location_{TestDataFactory.random_string(6)}'
        if not code:
            code = f'LOC_{TestDataFactory.random_string(6).upper()}'
        return StockLocation.objects.create(
            name=name,
            code=code,
            location_type=location_type,
            address=f'Test Address {name}',
            phone='1234567890'
        )

    @staticmethod
    def create_category(name=None, description=None):
        """Create a test category"""
        if not name:
            name = f'Category_{TestDataFactory.random_string(6)}'
        return Category.objects.create(
            name=name,
            description=description or f'Test category {name}'
        )

    @staticmethod
    def create_brand(name=None, description=None):
        """Create a test brand"""
        if not name:
            name = f'Brand_{TestDataFactory.random_string(6)}'
        return Brand.objects.create(
            name=name,
            description=description or f'Test brand {name}'
        )

    @staticmethod
    def create_product(name=None, sku=None, category=None, brand=None,
                       buying_price=Decimal('60.00'), selling_price=Decimal('100.00')):
        """Create a test product"""
        if not name:
            name = f'Product_{TestDataFactory.random_string(6)}'
        if not sku:
            sku = f'SKU_{TestDataFactory.random_string(8)}'
        if not category:
            category = TestDataFactory.create_category()
        if not brand:
            brand = TestDataFactory.create_brand()
        return Product.objects.create(
            name=name,
            sku=sku,
            category=category,
            brand=brand,
            buying_price=buying_price,
            selling_price=selling_price,
            low_stock_threshold=10
        )

    @staticmethod
    def create_variant(product, name=None, sku=None):
        """Create a test product variant"""
        if not name:
            name = f'Variant_{TestDataFactory.random_string(4)}'
        if not sku:
            sku = f'VSKU_{TestDataFactory.random_string(8)}'
        return ProductVariant.objects.create(product=product, name=name, sku=sku)

    @staticmethod
    def create_inventory(product, location, quantity=10, variant=None, size=''):
        """Create a stock line and keep the product's derived totals in step"""
        item = InventoryItem.objects.create(
            product=product,
            variant=variant,
            size=size,
            location=location,
            quantity=quantity
        )
        total = InventoryItem.objects.filter(product=product).aggregate(total=Sum('quantity'))['total'] or 0
        Product.objects.filter(pk=product.pk).update(total_stock=total, in_stock=total > 0)
        return item

    @staticmethod
    def create_supplier(name=None, phone=None, email=None):
        """Create a test supplier"""
        if not name:
            name = f'Supplier_{TestDataFactory.random_string(6)}'
        if not phone:
            phone = f'9{random.randint(100000000, 999999999)}'
        if not email:
            email = f'{name.lower()}@test.com'
        return Supplier.objects.create(
            name=name,
            phone=phone,
            email=email
        )

    @staticmethod
    def create_purchase_order(user=None, supplier=None, location=None, status='draft', items=None):
        """
        Create a test purchase order.

        ``items`` is a list of ``(product, quantity, unit_cost)`` tuples.
        """
        if not supplier:
            supplier = TestDataFactory.create_supplier()
        po = PurchaseOrder.objects.create(
            po_number=f'PO-TEST-{TestDataFactory.random_string(8).upper()}',
            supplier=supplier,
            location=location,
            status=status,
            created_by=user
        )
        total = Decimal('0.00')
        for product, quantity, unit_cost in items or []:
            line = PurchaseOrderItem.objects.create(
                purchase_order=po,
                product=product,
                quantity=quantity,
                unit_cost=unit_cost
            )
            total += line.total_cost
        if total:
            po.total_amount = total
            po.save(update_fields=['total_amount'])
        return po

    @staticmethod
    def create_order(items=None, location=None, payment_status='Paid', source='store', created_at=None,
                     shipping_fee=Decimal('0.00'), discount=Decimal('0.00'), fee=Decimal('0.00'),
                     transaction_fee_charge=Decimal('0.00'), payment_method='cash', payments=None,
                     total=None, **fields):
        """
        Create an order row directly, without touching stock.

        ``items`` is a list of dicts with product, quantity, price and optional
        discount / buying_price / variant. The total defaults to
        ``subtotal - discount + shipping_fee + fee``.
        """
        items = items or []
        subtotal = sum((Decimal(str(i['price'])) * i['quantity'] for i in items), Decimal('0.00'))
        if total is None:
            total = max(subtotal - discount, Decimal('0.00')) + shipping_fee + fee
        order = Order.objects.create(
            order_number=f'ORD-TEST-{TestDataFactory.random_string(8).upper()}',
            source=source,
            location=location,
            payment_status=payment_status,
            payment_method=payment_method,
            shipping_fee=shipping_fee,
            discount=discount,
            fee=fee,
            transaction_fee_charge=transaction_fee_charge,
            total=total,
            created_at=created_at or timezone.now(),
            **fields
        )
        for item in items:
            product = item['product']
            OrderItem.objects.create(
                order=order,
                product=product,
                variant=item.get('variant'),
                size=item.get('size', ''),
                name=product.name,
                quantity=item['quantity'],
                price=Decimal(str(item['price'])),
                discount=Decimal(str(item.get('discount', '0.00'))),
                buying_price=Decimal(str(item.get('buying_price', product.buying_price)))
            )
        for method, amount in payments or []:
            OrderPayment.objects.create(order=order, payment_method=method, amount=Decimal(str(amount)))
        return order

    @staticmethod
    def create_coupon(code=None, discount_type='PERCENTAGE', discount_value=Decimal('10.00'), **fields):
        """Create a test coupon"""
        if not code:
            code = f'CPN{TestDataFactory.random_string(6).upper()}'
        return Coupon.objects.create(
            code=code,
            name=f'Coupon {code}',
            discount_type=discount_type,
            discount_value=discount_value,
            **fields
        )

    @staticmethod
    def create_expense_category(name=None, type='expense'):
        if not name:
            name = f'Expense_{TestDataFactory.random_string(6)}'
        return ExpenseCategory.objects.create(name=name, type=type)

    @staticmethod
    def create_petty_cash(category=None, amount=Decimal('100.00'), status='PENDING', type='expense',
                          user=None, created_at=None):
        """Create a test petty cash entry"""
        if not category:
            category = TestDataFactory.create_expense_category(type=type)
        return PettyCash.objects.create(
            entry_number=f'PC-TEST-{TestDataFactory.random_string(8).upper()}',
            amount=amount,
            type=type,
            category=category,
            paid_for='Test expense',
            status=status,
            created_by=user,
            created_at=created_at or timezone.now()
        )

    @staticmethod
    def create_bank_account(balance=Decimal('1000.00')):
        return BankAccount.objects.create(
            account_name=f'Account_{TestDataFactory.random_string(6)}',
            bank_name='Test Bank',
            account_number=TestDataFactory.random_string(12),
            current_balance=balance
        )

    @staticmethod
    def create_supplier_invoice(supplier=None, total_amount=Decimal('500.00'), due_date=None, **fields):
        """Create a test supplier invoice"""
        if not supplier:
            supplier = TestDataFactory.create_supplier()
        return SupplierInvoice.objects.create(
            invoice_number=f'INV-{TestDataFactory.random_string(8).upper()}',
            supplier=supplier,
            total_amount=total_amount,
            due_date=due_date,
            **fields
        )


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
