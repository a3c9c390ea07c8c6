async def process(data, context):
    # Returns fresh dicts instead of the shared ones
    data = {**data, "modify_and_return_data": "modify_and_return_data"}
    context = {**context, "modify_and_return_context": "modify_and_return_context"}
    return {"data": data, "context": context}
