import click
from flask import Flask
from flask_migrate import Migrate

from config import Config
from models import db
from models.user import User, Role
from utils.seed import seed_roles, seed_services


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    # Seed default roles at startup (idempotent); tests create tables first
    with app.app_context():
        if app.config.get("TESTING"):
            db.create_all()
        seed_roles()

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("make-admin")
    @click.argument("email")
    def make_admin(email):
        """Promote a user to ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        admin_role = Role.query.filter_by(name="ADMIN").first()
        if not admin_role:
            admin_role = Role(name="ADMIN")
            db.session.add(admin_role)
            db.session.commit()

        if admin_role not in user.roles:
            user.roles.append(admin_role)
            db.session.commit()

        click.echo(f"{user.email} promoted to ADMIN")

    @app.cli.command("seed-services")
    def seed_services_command():
        """Insert the default service catalog."""
        added = seed_services()
        app.logger.info("seeded %d services", added)
        click.echo(f"{added} services added")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
