"""Backend for a personal prompt collection with free/pro memberships.

Users (authenticated by Clerk) keep prompts; free members are capped, pro
members are not.  Membership is driven by Stripe: subscription webhooks are
verified, the authoritative subscription is fetched, and the customer row is
upserted.  See ``prompt_manager.services.reconciliation`` for the core flow.

To run the API locally:

```bash
uvicorn prompt_manager.api.main:app --reload
```

Configuration values are read from environment variables or a ``.env`` file
at the project root (see ``prompt_manager.core.config``).
"""

__all__: list[str] = []
