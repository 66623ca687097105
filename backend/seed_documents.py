"""
Knowledge Base Seeding Script.

This script:
1. Clears existing articles from Supabase
2. Inserts the sample knowledge base articles
3. Reports the final article count

The same articles back the in-memory document store when the API runs
without Supabase.

Usage:
    python seed_documents.py
"""
import sys
import logging
from pathlib import Path
from typing import List

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent))

from models.conversation import utc_now
from models.document import Document

logger = logging.getLogger(__name__)

SAMPLE_ARTICLES = [
    {
        "title": "Getting Started with Our Product",
        "body": (
            "Welcome to the platform! This guide helps you get started quickly.\n\n"
            "To begin:\n"
            "1. Create an account with the sign-up button\n"
            "2. Verify your email address\n"
            "3. Complete your profile setup\n"
            "4. Start exploring features\n\n"
            "For any questions, contact our support team."
        ),
        "tags": ["getting-started", "onboarding", "basics"],
    },
    {
        "title": "API Documentation Overview",
        "body": (
            "Our API offers RESTful endpoints with JSON responses, authentication via API keys, "
            "rate limiting for fair usage and consistent error handling.\n\n"
            "Base URL: https://api.example.com/v1\n\n"
            "Every request must include your API key in the header:\n"
            "Authorization: Bearer YOUR_API_KEY\n\n"
            "See the API reference guide for detailed endpoint documentation."
        ),
        "tags": ["api", "documentation", "integration", "developer"],
    },
    {
        "title": "How to Reset Your Password",
        "body": (
            "Forgot your password? Follow these steps to reset it:\n\n"
            "1. Go to the login page\n"
            "2. Click the \"Forgot Password\" link\n"
            "3. Enter your registered email address\n"
            "4. Open the password reset link we email you\n"
            "5. Choose a new, strong password\n\n"
            "If the email does not arrive, check your spam folder or contact support. "
            "Mix uppercase, lowercase, numbers and special characters for a strong password."
        ),
        "tags": ["password", "security", "account", "help"],
    },
    {
        "title": "Subscription Plans and Pricing",
        "body": (
            "Free Plan: basic features, 5GB storage, community support.\n\n"
            "Pro Plan ($9.99/month): unlimited storage, priority support, advanced analytics "
            "and API access.\n\n"
            "Enterprise Plan (custom pricing): everything in Pro plus a dedicated account manager, "
            "custom integrations, SLA guarantees and team collaboration features.\n\n"
            "You can upgrade or downgrade your plan at any time from your account settings."
        ),
        "tags": ["pricing", "subscription", "plans", "billing"],
    },
    {
        "title": "Troubleshooting Common Issues",
        "body": (
            "Cannot log in: verify your email and password, or reset your password.\n"
            "Slow performance: clear your browser cache, check your internet connection "
            "or try a different browser.\n"
            "Features not working: use a supported browser (Chrome, Firefox, Safari, Edge) "
            "and disable interfering extensions.\n"
            "Payment not processing: verify your payment method and card expiry date.\n\n"
            "If nothing helps, contact support with details about your issue."
        ),
        "tags": ["troubleshooting", "help", "support", "issues"],
    },
    {
        "title": "Data Security and Privacy",
        "body": (
            "Security measures: end-to-end encryption, regular security audits, SSL/TLS for all "
            "connections, monitored data centers and regular backups.\n\n"
            "Privacy: we never sell your data, and we are GDPR and CCPA compliant. "
            "You have the right to data deletion.\n\n"
            "Retention: data of deleted accounts is removed within 30 days. "
            "Contact support to request immediate deletion."
        ),
        "tags": ["security", "privacy", "data", "compliance"],
    },
    {
        "title": "Integration with Third-Party Tools",
        "body": (
            "Supported integrations: Slack, Zapier, Google Workspace, Microsoft 365, GitHub and Jira.\n\n"
            "To set one up:\n"
            "1. Go to Settings > Integrations\n"
            "2. Choose the service to connect\n"
            "3. Authorize the connection\n"
            "4. Configure your preferences"
        ),
        "tags": ["integrations", "tools", "automation", "connectivity"],
    },
    {
        "title": "Mobile App Features",
        "body": (
            "Our mobile apps run on iOS 13.0 or later and Android 8.0 or later.\n\n"
            "Features: full parity with the web version, push notifications, offline mode, "
            "biometric authentication.\n\n"
            "Download from the App Store or Google Play Store. The app syncs automatically "
            "with your web account."
        ),
        "tags": ["mobile", "app", "ios", "android"],
    },
]


def sample_documents() -> List[Document]:
    """Sample articles as documents with stable identifiers."""
    created_at = utc_now()
    return [
        Document(
            document_id=f"kb-{index:03d}",
            title=article["title"],
            body=article["body"],
            tags=article["tags"],
            created_at=created_at
        )
        for index, article in enumerate(SAMPLE_ARTICLES, start=1)
    ]


def main():
    """Main seeding process."""
    from config import SUPABASE_URL, SUPABASE_KEY
    from services.document_store import SupabaseDocumentStore

    try:
        logger.info("=" * 60)
        logger.info("Seeding knowledge base articles")
        logger.info("=" * 60)

        store = SupabaseDocumentStore(supabase_url=SUPABASE_URL, supabase_key=SUPABASE_KEY)

        count_before = store.count()
        logger.info(f"Found {count_before} existing articles")
        if count_before > 0:
            store.clear()
            logger.info("Cleared existing articles")

        store.add_documents(sample_documents())
        logger.info(f"✓ Knowledge base now holds {store.count()} articles")
    except Exception as e:
        logger.error(f"Seeding failed: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
