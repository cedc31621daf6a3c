"""
Generate a one-time review access link from the shell.

Usage:
    python scripts/generate_review_link.py --email reviewer@example.com [--ttl 3600]
    python scripts/generate_review_link.py --user-id <uuid>
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

# Load environment variables first
from dotenv import load_dotenv
load_dotenv()

from fastapi import HTTPException

from staffhub.db import SessionLocal
from staffhub.services.review_tokens import issue_review_link


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Generate a one-time review access link")
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--email", help="Email of the account to hand over")
    target.add_argument("--user-id", help="Id of the account to hand over")
    parser.add_argument("--ttl", type=int, default=None, help="Link lifetime in seconds (min 60)")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        result = issue_review_link(db, email=args.email, user_id=args.user_id, ttl_seconds=args.ttl)
    except HTTPException as e:
        print(f"[ERROR] {e.detail}", file=sys.stderr)
        return 1
    finally:
        db.close()

    print(f"[OK] Link for {result['user']['email']} (expires in {result['expiresInSeconds']}s):")
    print(result["link"])
    return 0


if __name__ == "__main__":
    sys.exit(main())
