async def process(data, context):
    data["fast_data_no_return"] = "fast_data_no_return"
    context["fast_context_no_return"] = "fast_context_no_return"
