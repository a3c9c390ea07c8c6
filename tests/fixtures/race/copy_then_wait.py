import asyncio


async def process(data, context):
    # Snapshot before siblings have written anything, return it after them
    data = dict(data)
    context = dict(context)
    await asyncio.sleep(0.005)
    data["copied_data"] = "copied_data"
    context["copied_context"] = "copied_context"
    return {"data": data, "context": context}
