prerequisites = ["ok_step"]


def run_if(data, context):
    return context.get("enabled", True)


def process(data, context):
    data["guarded"] = True
