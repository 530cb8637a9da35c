"""
Example: Basic Payment Intent Flow

Creates a payment intent from free text, inspects its analysis, and executes it
against the simulated settlement backend.

Set AGENTPAY_ANALYSIS_API_KEY to have a chat-completions model parse and score
requests; without it every inferred value uses the documented defaults.
"""

import asyncio

from agentpay import AgentPay, Config


async def main():
    print("=== AgentPay Basic Example ===\n")

    config = Config.from_env(simulate=True)

    async with AgentPay(config=config) as client:
        print("✅ Client initialized, market monitoring started")

        intent = await client.intent.create(
            "Pay 0.05 ETH to 0xDEADBEEF for the API subscription, gas permitting",
            recipient="0xDEADBEEF",
        )
        print(f"✅ Intent {intent.id} created ({intent.status.value})")
        print(f"   Amount:     {intent.amount} {intent.token.value} ({intent.request.source.value})")
        print(f"   Risk:       {intent.risk_assessment.score} - {intent.risk_assessment.reasoning}")
        print(f"   Conditions: {', '.join(intent.execution_conditions) or 'none'}")
        print(f"   Timing:     {intent.market_analysis.timing.kind.value}")
        print(f"   Est. fee:   {intent.transaction.estimated_fee} wei")

        print("\n📤 Executing...")
        intent = await client.intent.execute(intent.id)
        if intent.settlement_reference:
            print(f"✅ Settled: {intent.settlement_reference}")
        else:
            print(f"❌ Failed ({intent.error_code.value}): {intent.error}")

        analytics = await client.intent.analytics()
        print(f"\nIntents: {analytics.total}, success rate: {analytics.success_rate:.0%}")


if __name__ == "__main__":
    asyncio.run(main())
