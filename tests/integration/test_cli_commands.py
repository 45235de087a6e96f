"""
Integration tests for Flask CLI commands.
"""

from decimal import Decimal

from livenzo.database import get_session
from livenzo.models import RentStatus


class TestSetRentCommand:

    def test_sets_rent(self, app, relationship):
        rid = relationship.id
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            'set-rent', '--relationship-id', str(rid), '--amount', '12000',
            '--due-date', '2030-04-05', '--billing-month', '2030-04'
        ])
        assert 'Rent set.' in result.output
        assert '₹12,000' in result.output

        rent = get_session().query(RentStatus).filter_by(relationship_id=rid).one()
        assert rent.billing_month == '2030-04'
        assert rent.current_amount == Decimal('12000')
        assert rent.status == 'pending'

    def test_unknown_relationship(self, app):
        runner = app.test_cli_runner()
        result = runner.invoke(args=['set-rent', '--relationship-id', '999', '--amount', '100'])
        assert 'Could not set rent' in result.output

    def test_invalid_month(self, app, relationship):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            'set-rent', '--relationship-id', str(relationship.id), '--amount', '100', '--billing-month', '2030-13'
        ])
        assert 'Invalid input' in result.output
