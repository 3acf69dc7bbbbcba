"""수집 실행자 (yt-dlp 프로세스, 브라우저 추출, 직접 스트림 다운로드).

실행자는 각 모듈에서 직접 import 합니다. 기본 체인 조립은 chain.build_default_chain().
"""
