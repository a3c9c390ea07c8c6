import asyncio


async def process(data, context):
    await asyncio.sleep(0.005)
    data["slow_data_and_return"] = "slow_data_and_return"
    context["slow_context_and_return"] = "slow_context_and_return"
    return {"data": data, "context": context}
