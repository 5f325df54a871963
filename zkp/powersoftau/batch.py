"""
청크 단위 배치 처리
====================

수백만 개의 점을 한 번에 메모리에 올릴 수 없으므로 벡터를 고정 크기
청크로 나누어 흘려보낸다.

  [start, end) → [start, start+b), [start+b, start+2b), ..., [.., end)

각 출력 원소는 대응하는 입력 원소와 비밀 스칼라에만 의존하므로
청크끼리는 서로 독립이다. workers > 1이면 청크를 스레드 풀에서 병렬로
처리한다. 유일한 동기화 불변식은 청크의 범위가 겹치지 않는다는 것이다.

사용 예시:
    >>> bp = BatchProcessor(batch_size=4)
    >>> list(bp.chunks(0, 10))
    [(0, 4), (4, 8), (8, 10)]
"""

import logging
from concurrent.futures import ThreadPoolExecutor

logger = logging.getLogger(__name__)


class BatchProcessor:

    def __init__(self, batch_size, workers=1):
        if batch_size < 1:
            raise ValueError(f"batch_size는 1 이상이어야 합니다: {batch_size}")
        if workers < 1:
            raise ValueError(f"workers는 1 이상이어야 합니다: {workers}")
        self.batch_size = batch_size
        self.workers = workers

    @classmethod
    def from_params(cls, params):
        return cls(params.batch_size, params.workers)

    def chunks(self, start, end):
        """겹치지 않는 반열린 구간 [a, b)를 순서대로 내놓는다."""
        for chunk_start in range(start, end, self.batch_size):
            yield chunk_start, min(chunk_start + self.batch_size, end)

    def run(self, start, end, fn):
        """모든 청크에 fn(chunk_start, chunk_end)를 적용한다.

        워커가 하나면 순서대로 실행한다. 여럿이면 ThreadPoolExecutor에
        제출하고, 모든 청크가 끝난 뒤 첫 번째 예외를 다시 던진다.

        Returns:
            list: 청크 순서대로 fn의 반환값
        """
        ranges = list(self.chunks(start, end))
        if self.workers == 1 or len(ranges) <= 1:
            results = []
            for a, b in ranges:
                logger.debug("chunk [%d, %d)", a, b)
                results.append(fn(a, b))
            return results

        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            futures = [executor.submit(fn, a, b) for a, b in ranges]
        # with 블록을 나오면 모든 작업이 끝나 있다
        return [future.result() for future in futures]
