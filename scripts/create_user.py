"""
Create a user and print a bearer token for it.
Tokens are normally issued by the identity provider; this is for local work.

    python scripts/create_user.py alice --full-name "Alice Liddell" --follow bob
"""
import argparse
import sys

from instaplus.core.security import create_access_token
from instaplus.db.init_db import create_all_tables
from instaplus.db.session import SessionLocal
from instaplus.modules.users.schemas.user import UserCreate
from instaplus.modules.users.services.user import create_user, follow_user, get_user_by_username

def main():
    parser = argparse.ArgumentParser(description="Create a local user and print an access token")
    parser.add_argument("username")
    parser.add_argument("--full-name", default=None)
    parser.add_argument("--profile-pic", default=None)
    parser.add_argument("--follow", action="append", default=[], help="Username to follow (repeatable)")
    args = parser.parse_args()

    create_all_tables()
    with SessionLocal() as db:
        user = get_user_by_username(db, args.username)
        if user:
            print(f"User {args.username} already exists ({user.id})")
        else:
            user = create_user(db, UserCreate(
                username=args.username,
                full_name=args.full_name,
                profile_pic=args.profile_pic,
            ))
            print(f"Created user {user.username} ({user.id})")

        for username in args.follow:
            other = get_user_by_username(db, username)
            if not other:
                print(f"Cannot follow {username}: no such user")
                sys.exit(1)
            follow_user(db, user.id, other.id)
            print(f"{user.username} now follows {username}")

        print(f"Access token: {create_access_token(user.id)}")

if __name__ == "__main__":
    main()
