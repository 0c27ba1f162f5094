"""SkillLance Gateway -- FastAPI 应用与请求生命周期服务"""
