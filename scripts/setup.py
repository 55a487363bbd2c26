#!/usr/bin/env python3
"""Setup script for the deal storefront."""

import os
import shutil
import subprocess
import sys
from pathlib import Path


def main():
    """Run setup tasks."""
    print("=" * 80)
    print("Deal Storefront - Setup")
    print("=" * 80)

    # Check Python version
    if sys.version_info < (3, 10):
        print("Error: Python 3.10 or higher is required")
        sys.exit(1)

    print("\n✓ Python version check passed")

    # Create directories
    print("\n Creating directories...")
    dirs = [
        "data/db",
        "data/logs",
    ]

    for dir_path in dirs:
        Path(dir_path).mkdir(parents=True, exist_ok=True)
        print(f"  ✓ Created {dir_path}")

    # Install dependencies
    print("\n📦 Installing dependencies...")
    try:
        subprocess.run(
            [sys.executable, "-m", "pip", "install", "-e", "."],
            check=True,
        )
        print("  ✓ Dependencies installed")
    except subprocess.CalledProcessError:
        print("  ✗ Failed to install dependencies")
        sys.exit(1)

    # Check for .env file
    if not os.path.exists(".env"):
        print("\n⚠ No .env file found. Creating from .env.example...")
        if os.path.exists(".env.example"):
            shutil.copy(".env.example", ".env")
            print("  ✓ Created .env file - set GOOGLE_CLIENT_ID, CURATOR_EMAIL and OPENAI_API_KEY")
        else:
            print("  ✗ .env.example not found")
    else:
        print("\n✓ .env file exists")

    # Initialize database
    print("\n🗄 Initializing database...")
    try:
        # Import here to ensure dependencies are installed
        from storefront.storage.database import Database
        from storefront.utils.config import get_config

        db = Database(get_config().database.url)
        print(f"  ✓ Database initialized ({db.count_products()} offers)")
    except Exception as e:
        print(f"  ✗ Failed to initialize database: {e}")
        sys.exit(1)

    print("\n" + "=" * 80)
    print("✅ Setup completed successfully!")
    print("=" * 80)
    print("\nNext steps:")
    print("1. Edit .env file with your identity client id, curator email and API key")
    print("2. Run 'python -m storefront api' to start the API server")
    print("3. Run 'python -m storefront scheduler' to enrich and import offers in the background")


if __name__ == "__main__":
    main()
