#!/usr/bin/env python3
"""
Generate the pre-shared key for the Pick'em admin endpoints
Run this script to generate SCORING_API_KEY
"""

import secrets


def generate_secrets():
    """Generate a secure random key for the admin trigger endpoints"""
    print("🔐 Generating secure secrets for Pick'em...")
    print("=" * 50)

    scoring_api_key = secrets.token_urlsafe(32)

    print(f"SCORING_API_KEY={scoring_api_key}")

    print("=" * 50)
    print("📝 Copy this value to your .env file and to the caller's X-API-Key header")
    print("⚠️  Keep these secrets secure and never commit them to version control!")


if __name__ == "__main__":
    generate_secrets()
