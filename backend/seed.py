from __future__ import annotations

import os

from flask_jwt_extended import create_access_token

from drive import create_app
from drive.extensions import db
from drive.models import User


def main() -> None:
    app = create_app()

    with app.app_context():
        db.create_all()

        username = os.getenv("SEED_USERNAME", "demo")
        user = User.query.filter_by(username=username).one_or_none()
        created = False
        if user is None:
            user = User(username=username)
            db.session.add(user)
            db.session.commit()
            created = True

        token = create_access_token(identity=str(user.id))
        print(f"{'Created' if created else 'Found'} user: {username} (id={user.id})")
        print(f"Access token: {token}")


if __name__ == "__main__":
    main()
