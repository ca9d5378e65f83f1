"""
Test Data Seeder for Installment App Tests

Builds staff users, parties, products and installment plans consistently
for the test suites of every app. Plans are created through the same
amortization code the API uses, so seeded schedules are real schedules.
"""

from django.contrib.auth import get_user_model
from decimal import Decimal
from datetime import date, timedelta
from typing import Dict, List, Optional
import logging

from apps.catalog.models import Product
from apps.parties.models import Party, CreditRegisterEntry
from .models import InstallmentPlan, RepaymentEntry, PlanGuarantor
from .utils import calculate_plan_totals, persist_schedule, update_plan_stats

User = get_user_model()
logger = logging.getLogger(__name__)


class TestDataSeeder:
    """
    Test data seeder for installment-finance tests.

    Provides methods to create:
    - Staff users (managers and cashiers)
    - Customer and guarantor parties
    - Products with stock
    - Installment plans with real repayment schedules
    """

    def __init__(self):
        self.created_users = []
        self.created_parties = []
        self.created_products = []
        self.created_plans = []
        self._seed_counter = 0

    def get_unique_identifier(self) -> str:
        self._seed_counter += 1
        return f"test_{self._seed_counter}"

    def create_manager(self, **kwargs) -> User:
        unique_id = self.get_unique_identifier()
        defaults = {
            'username': f'manager_{unique_id}',
            'email': f'manager_{unique_id}@test.com',
            'password': 'testpass123',
            'user_type': 'manager',
            'first_name': 'Test',
            'last_name': 'Manager'
        }
        defaults.update(kwargs)

        user = User.objects.create_user(**defaults)
        self.created_users.append(user)
        logger.debug(f"Created manager user: {user.username}")
        return user

    def create_cashier(self, **kwargs) -> User:
        unique_id = self.get_unique_identifier()
        defaults = {
            'username': f'cashier_{unique_id}',
            'email': f'cashier_{unique_id}@test.com',
            'password': 'testpass123',
            'user_type': 'cashier',
            'first_name': 'Test',
            'last_name': 'Cashier'
        }
        defaults.update(kwargs)

        user = User.objects.create_user(**defaults)
        self.created_users.append(user)
        logger.debug(f"Created cashier user: {user.username}")
        return user

    def create_customer(self, **kwargs) -> Party:
        unique_id = self.get_unique_identifier()
        defaults = {
            'full_name': f'Customer {unique_id}',
            'guardian_name': 'Guardian Name',
            'phone': f'0300{self._seed_counter:07d}',
            'national_id': f'35202-{self._seed_counter:07d}-1',
            'email': f'customer_{unique_id}@test.com',
            'address': '12 Mall Road',
            'city': 'Lahore',
            'role': 'customer',
        }
        defaults.update(kwargs)

        party = Party.objects.create(**defaults)
        self.created_parties.append(party)
        return party

    def create_guarantor(self, **kwargs) -> Party:
        defaults = {'role': 'guarantor', 'email': ''}
        defaults.update(kwargs)
        return self.create_customer(**defaults)

    def create_product(self, **kwargs) -> Product:
        unique_id = self.get_unique_identifier()
        defaults = {
            'name': f'Refrigerator {unique_id}',
            'sku': f'SKU-{unique_id}',
            'price': Decimal('120000.00'),
            'quantity': 5,
        }
        defaults.update(kwargs)

        product = Product.objects.create(**defaults)
        self.created_products.append(product)
        return product

    def create_plan(self, customer: Optional[Party] = None, product: Optional[Product] = None,
                    created_by: Optional[User] = None, today: Optional[date] = None,
                    **kwargs) -> InstallmentPlan:
        """
        Create a plan and its schedule without touching product stock.

        Accepts the plan terms (down_payment, interest_rate, tenure,
        tenor_type, start_date, finance_amount, status) as keyword overrides.
        """
        customer = customer or self.create_customer()
        product = product or self.create_product()

        terms = {
            'down_payment': Decimal('20000.00'),
            'interest_rate': Decimal('12.00'),
            'tenure': 6,
            'tenor_type': 'month',
            'start_date': date.today(),
            'finance_amount': None,
        }
        status = kwargs.pop('status', 'active')
        terms.update(kwargs)

        totals = calculate_plan_totals(
            product.price,
            terms['down_payment'],
            terms['interest_rate'],
            terms['tenure'],
            terms['start_date'],
            tenor_type=terms['tenor_type'],
            finance_amount=terms['finance_amount'],
            today=today,
        )

        plan = InstallmentPlan.objects.create(
            customer=customer,
            product=product,
            created_by=created_by,
            product_price=product.price,
            financed_amount=totals['financed_amount'],
            emi_amount=totals['emi_amount'],
            total_payable=totals['total_payable'],
            total_interest=totals['total_interest'],
            remaining_installments=terms['tenure'],
            **terms
        )
        persist_schedule(plan, totals['schedule'])
        update_plan_stats(plan)

        if status != 'active':
            InstallmentPlan.objects.filter(id=plan.id).update(status=status)
            plan.status = status

        self.created_plans.append(plan)
        logger.debug(f"Created installment plan: {plan.id}")
        return plan

    def settle_entries(self, plan: InstallmentPlan, count: int, paid_date: Optional[date] = None) -> List[RepaymentEntry]:
        """Mark the first ``count`` entries paid in full, bypassing the payment flow"""
        entries = list(plan.schedule.order_by('installment_number')[:count])
        for entry in entries:
            RepaymentEntry.objects.filter(id=entry.id).update(
                status='paid',
                actual_paid_amount=entry.emi_amount,
                paid_date=paid_date or entry.due_date,
            )
        update_plan_stats(plan)
        return [RepaymentEntry.objects.get(id=entry.id) for entry in entries]

    def add_guarantor(self, plan: InstallmentPlan, party: Optional[Party] = None,
                      relationship: str = 'Brother') -> PlanGuarantor:
        party = party or self.create_guarantor()
        return PlanGuarantor.objects.create(plan=plan, party=party, relationship=relationship)

    def add_credit(self, customer: Party, amount: Decimal, **kwargs) -> CreditRegisterEntry:
        defaults = {
            'transaction_type': 'credit',
            'amount': amount,
            'description': 'Manual credit',
            'reference_type': 'manual_adjustment',
        }
        defaults.update(kwargs)
        return CreditRegisterEntry.objects.create(customer=customer, **defaults)

    def create_test_scenario(self, scenario_name: str) -> Dict:
        scenarios = {
            'basic_plan': self._create_basic_plan_scenario,
            'overdue_plan': self._create_overdue_plan_scenario,
            'mixed_book': self._create_mixed_book_scenario,
        }

        if scenario_name not in scenarios:
            raise ValueError(f"Unknown scenario: {scenario_name}. Available: {list(scenarios.keys())}")

        return scenarios[scenario_name]()

    def _create_basic_plan_scenario(self) -> Dict:
        manager = self.create_manager()
        cashier = self.create_cashier()
        customer = self.create_customer()
        product = self.create_product()
        plan = self.create_plan(customer=customer, product=product, created_by=cashier)

        return {
            'manager': manager,
            'cashier': cashier,
            'customer': customer,
            'product': product,
            'plan': plan,
            'entries': list(plan.schedule.all()),
        }

    def _create_overdue_plan_scenario(self) -> Dict:
        """Plan started four months ago with only the first installment paid"""
        manager = self.create_manager()
        cashier = self.create_cashier()
        customer = self.create_customer()
        start = date.today() - timedelta(days=125)
        plan = self.create_plan(customer=customer, created_by=cashier, start_date=start)
        self.settle_entries(plan, 1)

        return {
            'manager': manager,
            'cashier': cashier,
            'customer': customer,
            'plan': plan,
        }

    def _create_mixed_book_scenario(self) -> Dict:
        """One plan of each status, for reports"""
        manager = self.create_manager()
        customer = self.create_customer()

        active = self.create_plan(customer=customer, created_by=manager)
        completed = self.create_plan(
            created_by=manager, tenure=2, start_date=date.today() - timedelta(days=70)
        )
        self.settle_entries(completed, 2)
        defaulted = self.create_plan(
            created_by=manager, start_date=date.today() - timedelta(days=200), status='defaulted'
        )
        cancelled = self.create_plan(created_by=manager, status='cancelled')

        return {
            'manager': manager,
            'customer': customer,
            'active': active,
            'completed': completed,
            'defaulted': defaulted,
            'cancelled': cancelled,
        }

    def get_summary(self) -> Dict:
        return {
            'users_created': len(self.created_users),
            'parties_created': len(self.created_parties),
            'products_created': len(self.created_products),
            'plans_created': len(self.created_plans),
            'managers': [u for u in self.created_users if u.user_type == 'manager'],
            'cashiers': [u for u in self.created_users if u.user_type == 'cashier'],
        }


class BaseTestWithSeeder:
    """
    Mixin that gives a test case a seeder and calls ``seed_test_data``.

    Database rows are rolled back by Django's TestCase, so no cleanup is needed.
    """

    def setUp(self):
        super().setUp()
        self.seeder = TestDataSeeder()
        self.seed_test_data()

    def seed_test_data(self):
        pass
