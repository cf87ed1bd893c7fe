import anyio
from fastapi.testclient import TestClient as FastAPITestClient


class TestClient(FastAPITestClient):
    """
    FastAPI TestClient that also closes the lifespan streams on exit, so the
    delivery stack shutdown does not leave ResourceWarning noise behind.
    """

    __test__ = False

    def __exit__(self, *args):
        result = super().__exit__(*args)
        for stream_name in ("stream_send", "stream_receive"):
            stream = getattr(self, stream_name, None)
            if stream is None:
                continue
            try:
                anyio.run(stream.aclose)
            except RuntimeError:
                # Already closed by the portal.
                continue
        return result
