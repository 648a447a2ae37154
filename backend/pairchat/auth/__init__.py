"""Authentication module (JWT bearer tokens).

Services:
    - TokenService: HS256 token minting and verification.
    - current_user_id: FastAPI dependency for HTTP routes.
"""
