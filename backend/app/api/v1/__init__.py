"""
API v1 模块

路由聚合见 app.api.v1.api
"""
