"""
Flask CLI commands for shop setup.

Commands:
- flask init-db: Create the database tables
- flask seed-menu: Load a starter menu
- flask create-customer: Create a customer or staff account
- flask issue-token: Print a bearer token for an account
"""

import click
import re
from decimal import Decimal
from flask import current_app
from cakeshop.database import create_all, drop_all, get_session
from cakeshop.models import Customer, CustomerRole, ItemSize, MenuItem
from cakeshop.services.auth_service import issue_token

EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'

# name, category, description, base price, stock, [(size, price, stock)]
STARTER_MENU = [
    ('Chocolate Cake', 'cake', 'Dark chocolate sponge with ganache', '250.00', 0,
     [('6 inch', '250.00', 5), ('8 inch', '400.00', 3)]),
    ('Ube Cake', 'cake', 'Purple yam chiffon with ube halaya', '280.00', 0,
     [('6 inch', '280.00', 4), ('8 inch', '450.00', 2)]),
    ('Red Velvet Cupcake', 'cupcake', 'Cream cheese frosting', '75.50', 24, []),
    ('Ensaymada', 'pastry', 'Buttery brioche with cheese', '45.00', 30, []),
]


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    @click.option('--drop', is_flag=True, help='Drop existing tables first')
    def init_db_command(drop):
        """Create all tables."""
        if drop:
            drop_all()
            click.echo(click.style('Dropped existing tables', fg='yellow'))
        create_all()
        click.echo(click.style('Database tables created', fg='green'))

    @app.cli.command('seed-menu')
    def seed_menu():
        """Load the starter menu. Items that already exist by name are skipped."""
        db_session = get_session()
        created = 0
        try:
            for name, category, description, price, stock, sizes in STARTER_MENU:
                if db_session.query(MenuItem).filter_by(name=name).first():
                    continue
                item = MenuItem(
                    name=name,
                    category=category,
                    description=description,
                    base_price=Decimal(price),
                    stock=stock,
                    has_sizes=bool(sizes),
                    active=True,
                )
                item.sizes = [
                    ItemSize(size_name=size_name, price=Decimal(size_price), stock=size_stock, active=True)
                    for size_name, size_price, size_stock in sizes
                ]
                db_session.add(item)
                created += 1
            db_session.commit()
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Error seeding menu: {str(e)}', fg='red'))
            return

        click.echo(click.style(f'{created} menu item(s) created', fg='green'))

    @app.cli.command('create-customer')
    @click.option('--email', prompt=True, help='Account email address')
    @click.option('--name', 'full_name', default=None, help='Full name')
    @click.option('--role', type=click.Choice([r.value for r in CustomerRole]),
                  default=CustomerRole.CUSTOMER.value, show_default=True)
    def create_customer(email, full_name, role):
        """Create an account."""
        if not re.match(EMAIL_PATTERN, email):
            click.echo(click.style('Invalid email. Use user@example.com', fg='red'))
            return

        db_session = get_session()
        if db_session.query(Customer).filter_by(email=email).first():
            click.echo(click.style(f'An account already exists for {email}', fg='red'))
            return

        try:
            customer = Customer(email=email, full_name=full_name, role=role, active=True)
            db_session.add(customer)
            db_session.commit()
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Error creating account: {str(e)}', fg='red'))
            return

        click.echo(click.style(f'{role} account created for {email} (id {customer.id})', fg='green'))

    @app.cli.command('issue-token')
    @click.option('--email', prompt=True, help='Account email address')
    @click.option('--expires-in', default=None, type=int, help='Lifetime in seconds')
    def issue_token_command(email, expires_in):
        """Print a bearer token for an active account."""
        db_session = get_session()
        customer = db_session.query(Customer).filter_by(email=email, active=True).first()
        if not customer:
            click.echo(click.style(f'No active account for {email}', fg='red'))
            return

        token = issue_token(
            customer,
            current_app.config['JWT_SECRET_KEY'],
            current_app.config.get('JWT_ALGORITHM', 'HS256'),
            expires_in or current_app.config.get('JWT_EXPIRATION_SECONDS', 3600),
        )
        click.echo(token)
