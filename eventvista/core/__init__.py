"""핵심 인프라(설정/로깅/예외/DB) 패키지."""
