"""Basic usage example for transaction search."""

import asyncio
import random
from datetime import datetime, timedelta
from typing import List

from transaction_search import TransactionSearchService, Transaction, TransactionType, SearchOptions


PROJECTS = [("p1", "Riverside Tower"), ("p2", "Harbor Bridge"), ("p3", "Head Office")]

EXPENSES = [
    ("Cement purchase for foundation", "c1", "Construction Materials", "BuildMart"),
    ("Concrete mix delivery", "c1", "Construction Materials", "ReadyMix Co"),
    ("Steel rebar purchase", "c1", "Construction Materials", "SteelWorks"),
    ("Excavator rental", "c4", "Equipment", "HeavyLift Rentals"),
    ("Site labour wages", "c5", "Labour", "Payroll"),
    ("Office rent", "c3", "Rent", "City Properties"),
]

INCOME = [
    ("Client payment milestone", "c2", "Project Revenue", "Acme Developers"),
    ("Consulting revenue", "c2", "Project Revenue", "Globex"),
]


def generate_transactions(count: int = 60) -> List[Transaction]:
    """Generate a small construction-company ledger."""
    random.seed(7)
    base_date = datetime.now() - timedelta(days=120)

    transactions = []
    for i in range(count):
        is_income = random.random() < 0.25
        description, category_id, category_name, source = random.choice(INCOME if is_income else EXPENSES)
        project_id, project_name = random.choice(PROJECTS)
        transactions.append(Transaction(
            id=f"txn_{i + 1:04d}",
            description=description,
            date=base_date + timedelta(days=random.randint(0, 120)),
            type=TransactionType.INCOME if is_income else TransactionType.EXPENSE,
            amount=round(random.uniform(200, 25000), 2),
            project_id=project_id,
            project_name=project_name,
            category_id=category_id,
            category_name=category_name,
            source=source
        ))
    return transactions


async def basic_search_demo():
    """Demonstrate hybrid and smart search."""
    print("🔍 Transaction Search - Basic Usage Demo")
    print("=" * 50)

    print("\n1. Initializing search service...")
    async with TransactionSearchService.create(warm_up=True, log_level="INFO") as service:

        print("\n2. Embedding and indexing transactions...")
        transactions = generate_transactions()
        embeddings = await service.engine.embedder.embed_batch(
            [" ".join(t.text_fields()) for t in transactions]
        )
        for transaction, embedding in zip(transactions, embeddings):
            transaction.embedding = embedding
        await service.add_transactions(transactions)

        stats = await service.get_stats()
        print(f"   Indexed {stats['store']['total_transactions']} transactions")
        print(f"   Vocabulary size: {stats['store']['vocabulary_size']} terms")

        print("\n3. Hybrid searches...")
        for query_text in ["cement", "building materials", "money from clients"]:
            response = await service.hybrid_search(query_text, options=SearchOptions(limit=3))
            print(f"\n   Query: '{query_text}'")
            for result in response.results:
                t = result.transaction
                print(f"     {result.rank}. {t.description} ({t.project_name}, {t.date:%Y-%m-%d}) "
                      f"hybrid={result.hybrid_score:.3f} vector={result.vector_score:.3f} "
                      f"text={result.text_score:.3f}")

        print("\n4. Smart search...")
        for query_text in ["cement expenses this month", "revenue last month"]:
            response = await service.smart_search(query_text, limit=3)
            context = response.metadata.query_context
            print(f"\n   Query: '{query_text}' -> '{context.effective_query}' {context.matched_rules}")
            for result in response.results:
                print(f"     {result.rank}. {result.transaction.description} "
                      f"({result.transaction.date:%Y-%m-%d})")

        print("\n5. Suggestions for 'c':")
        print(f"   {await service.suggest('c')}")

        health = await service.health_check()
        print(f"\n6. System status: {health['status']}")
        print(f"   Average search time: {health['stats']['avg_search_time']:.3f}s")

    print("\n✅ Demo completed successfully!")


if __name__ == "__main__":
    asyncio.run(basic_search_demo())
