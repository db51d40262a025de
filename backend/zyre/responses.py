from flask import jsonify


def success(data, method: str, message: str, status: int = 200):
    """Standard success envelope: {success, method, message, data}."""
    return jsonify({
        "success": True,
        "method": method,
        "message": message,
        "data": data,
    }), status
