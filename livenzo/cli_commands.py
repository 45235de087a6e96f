"""
Flask CLI commands for rent operations.

Commands:
- flask init-db: Create database tables
- flask set-rent: Set the rent due for a relationship and month
"""

from datetime import date

import click
from livenzo.database import create_all, get_session
from livenzo.exceptions import LivenzoError
from livenzo.services.rent_status_service import get_relationship, set_monthly_rent
from livenzo.utils.formatters import money_inr, parse_billing_month


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables that do not exist yet."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('set-rent')
    @click.option('--relationship-id', type=int, required=True, help='Relationship ID')
    @click.option('--amount', required=True, help='Rent amount in INR')
    @click.option('--due-date', default=None, help='Due date (YYYY-MM-DD)')
    @click.option('--billing-month', default=None, help='Billing month (YYYY-MM), defaults to current')
    def set_rent(relationship_id, amount, due_date, billing_month):
        """Set the monthly rent for a renter (run monthly from a scheduler to open a new month)."""
        try:
            month = parse_billing_month(billing_month)
            due = date.fromisoformat(due_date) if due_date else None
        except ValueError as e:
            click.echo(click.style(f'Invalid input: {e}', fg='red'))
            return

        db_session = get_session()
        try:
            relationship = get_relationship(db_session, relationship_id)
            rent_status = set_monthly_rent(db_session, relationship, amount, due_date=due, billing_month=month)
            db_session.commit()
        except LivenzoError as e:
            db_session.rollback()
            click.echo(click.style(f'Could not set rent: {e.message}', fg='red'))
            return

        click.echo(click.style('Rent set.', fg='green', bold=True))
        click.echo(f'   Relationship: {relationship.id}')
        click.echo(f'   Month: {rent_status.billing_month}')
        click.echo(f'   Amount: {money_inr(rent_status.current_amount)}')
        click.echo(f'   Status: {rent_status.status}')
