"""核心编辑逻辑模块.

子模块按需导入，避免与数据模型模块之间的循环依赖:

    - geometry: 百分比与像素换算
    - layer_store: 图层状态存储
    - viewport: 视口缩放
    - snapping: 吸附计算
    - manipulation: 拖拽与缩放引擎
    - config_manager: 配置管理
"""
