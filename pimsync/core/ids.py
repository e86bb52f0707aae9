import uuid

RUN_ID_PREFIX = "imp"


def new_run_id() -> str:
    # imp_<32 hex>, safe in URLs and the ":cancel"/":resume" action suffixes
    return f"{RUN_ID_PREFIX}_{uuid.uuid4().hex}"
