API = "/api/v1"


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
