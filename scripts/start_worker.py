#!/usr/bin/env python3
# =============================================================================
# scripts/start_worker.py - Celery Worker Entry Point
# =============================================================================
# Starts a Celery worker with the embedded beat scheduler, so the nightly
# score recalculation runs without a separate beat process.
#
# Usage:
#   # Start worker (development)
#   python scripts/start_worker.py
#
#   # Or use Celery CLI directly
#   celery -A workers.celery_app worker --beat --loglevel=info
#
#   # Start with concurrency limit
#   celery -A workers.celery_app worker --loglevel=info --concurrency=4
#
# Prerequisites:
#   - Redis must be running (redis-server)
#   - Environment variables must be set (.env file)
# =============================================================================

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from workers.celery_app import celery_app


def main():
    """Start the Celery worker."""
    print("=" * 60)
    print("Marketplace Celery Worker")
    print("=" * 60)
    print()
    print("Starting worker...")
    print("Press Ctrl+C to stop")
    print()

    # Start worker with info logging
    celery_app.worker_main([
        "worker",
        "--loglevel=info",
        "--beat",
        "--queues=default,scores",
        "--concurrency=2",  # 2 worker processes
    ])


if __name__ == "__main__":
    main()
