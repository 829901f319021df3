#!/usr/bin/env python3
"""
Generate SECRET_KEY and WTF_CSRF_SECRET_KEY values for the .env file
"""

import secrets


def generate_secrets():
    print("🔐 Generating secrets for MNF Pick'em...")
    print("=" * 50)

    print(f"SECRET_KEY={secrets.token_urlsafe(32)}")
    print(f"WTF_CSRF_SECRET_KEY={secrets.token_urlsafe(32)}")

    print("=" * 50)
    print("📝 Copy these values to your .env file (never commit them)")


if __name__ == "__main__":
    generate_secrets()
