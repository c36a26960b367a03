"""Proxy route - the serverless proxy handler mounted on the API."""

from fastapi import APIRouter, Request, Response
from fastapi.concurrency import run_in_threadpool

from sentiment_pulse import proxy

router = APIRouter(prefix="/api", tags=["proxy"])


@router.api_route("/proxy", methods=["GET", "POST", "OPTIONS"])
async def proxy_request(request: Request):
    body = await request.body()
    event = {
        "httpMethod": request.method,
        "queryStringParameters": dict(request.query_params),
        "body": body.decode("utf-8", errors="replace") if body else None,
    }
    result = await run_in_threadpool(proxy.handler, event, None)
    return Response(content=result["body"], status_code=result["statusCode"], headers=result["headers"])
