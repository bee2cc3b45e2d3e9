from flask import request

from tunebuzz.errors import InvalidInput


def json_body():
    """The request's JSON object body; anything else is ``InvalidInput``."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidInput('expected a JSON object body')
    return data
