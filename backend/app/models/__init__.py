"""
数据模型：ORM 对象 (ontology)、请求/响应模式 (schemas)、领域事件 (events)
"""
from app.models import ontology  # noqa: F401
