"""AWS 관련 공유 유틸리티.

하위 모듈:
- metrics: CloudWatch 차원 조회, 메트릭 값 조회, 이름 변환
- tags: Resource Groups Tagging API 기반 리소스 선택
"""
