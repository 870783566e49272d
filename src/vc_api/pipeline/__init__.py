"""请求处理管线：认证 → 权限 → 会员校验 → 活跃度追踪。"""
