import argparse

from dotenv import load_dotenv

from app.config import settings
from app.db import SessionLocal
from app.models.fleet import RouterNode, RouterStatus
from app.services.common import new_id


def parse_args():
    parser = argparse.ArgumentParser(description="Register a router without the discovery flow.")
    parser.add_argument("--name", required=True)
    parser.add_argument("--host", required=True)
    parser.add_argument("--port", type=int, default=settings.routeros_default_port)
    parser.add_argument("--username", default=settings.provision_username)
    parser.add_argument("--password", default=settings.provision_password)
    parser.add_argument("--maintenance", action="store_true")
    return parser.parse_args()


def main():
    load_dotenv()
    args = parse_args()
    db = SessionLocal()
    try:
        node = db.query(RouterNode).filter(RouterNode.host == args.host).first()
        if node:
            print(f"Router {node.name} ({node.id}) is already registered for {args.host}.")
            return

        node = RouterNode(
            id=new_id("r"),
            name=args.name,
            host=args.host,
            port=args.port,
            username=args.username,
            password=args.password,
            status=RouterStatus.maintenance if args.maintenance else RouterStatus.offline,
        )
        db.add(node)
        db.commit()
        print(f"Router {node.name} registered as {node.id}.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
