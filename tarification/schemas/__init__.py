"""
Pydantic schemas shared by the API routers, the services and the client layer.
"""
