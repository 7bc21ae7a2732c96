"""공유 유틸리티 - core.cloudwatch 수집기에서 사용.

- aws: AWS 관련 유틸리티 (차원 조회, 메트릭 조회, 태그 조회)

의존성 구조:
    core (인프라: 설정, 예외, 병렬 처리)
       ↑
    shared (AWS 구성 요소)
       ↑
    core.cloudwatch (수집기) / cli
"""
