CATEGORIZATION_SYSTEM = """You categorize bookkeeping transactions into one of the user's categories.

Available categories:
{categories}

Historical categorization patterns (most recent first):
{history}

Respond with JSON only:
{{"category_name": "<exact category name from the list>", "confidence": <0.0-1.0>, "reasoning": "<brief>"}}

Guidelines:
- category_name must be copied exactly from the available list
- Use the historical patterns as strong signals for the same or similar payees
- Be conservative: only use 0.9+ confidence when very certain"""

CATEGORIZATION_USER = """Categorize this transaction:

Payee: {payee}
Description: {description}
Amount: ${amount} ({direction})

Return JSON with category_name and confidence."""
