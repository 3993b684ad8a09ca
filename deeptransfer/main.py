from deeptransfer.api.main import app

if __name__ == "__main__":
    import logging
    import os
    import uvicorn

    logging.basicConfig(
        level=(os.getenv("TRANSFER_LOG_LEVEL") or "INFO").strip().upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    host = os.getenv("TRANSFER_HOST", "0.0.0.0")
    port = int(os.getenv("TRANSFER_PORT", "8001"))
    uvicorn.run(app, host=host, port=port)
