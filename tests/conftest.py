import pytest

COLLECTION_ID = "coll-1"


def page(parent_id=COLLECTION_ID, type_="page", alive=True, **props):
    return {
        "role": "reader",
        "value": {
            "type": type_,
            "alive": alive,
            "parent_id": parent_id,
            "properties": props,
        },
    }


def make_response(blocks, size_hint=None, schema=None):
    schema = schema or {
        "tw": {"name": "Twitter", "type": "text"},
        "nm": {"name": "Name", "type": "title"},
        "sm": {"name": "Summary/Reason for being on this list", "type": "text"},
    }
    return {
        "result": {"sizeHint": len(blocks) if size_hint is None else size_hint},
        "recordMap": {
            "block": blocks,
            "collection": {
                COLLECTION_ID: {"role": "reader", "value": {"schema": schema}},
            },
        },
    }


@pytest.fixture
def sample_response():
    return make_response({
        "b1": page(tw=[["@alice"]], nm=[["Alice"]], sm=[["see "], ["here", [["a", "http://x"]]]]),
        "b2": page(tw=[["bob"]], nm=[["Bob"]]),
        "b3": page(type_="text", tw=[["@carol"]]),
        "b4": page(parent_id="other", tw=[["@dave"]]),
        "b5": page(alive=False, tw=[["@erin"]], nm=[["Erin"]]),
    })
