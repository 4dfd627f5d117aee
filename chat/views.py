from django.http import JsonResponse, StreamingHttpResponse
from django.utils.text import Truncator
from django.views.decorators.csrf import csrf_exempt

from rest_framework.decorators import api_view
from rest_framework.response import Response

from .config import coerce_temperature, get_relay_config
from .provider import get_provider
from .serializers import ChatRequestSerializer, describe_errors
import time, logging, json

log = logging.getLogger("chatrelay")

GENERIC_PROVIDER_ERROR = "Unable to generate a response. Please verify your API key and try again."


def _build_provider_request(data, config):
    """Turn validated request data into the messages/model/temperature sent upstream."""
    messages = [{"role": m["role"], "content": m["content"]} for m in data["messages"]]
    model = data.get("model") or config.default_model
    temperature = coerce_temperature(data.get("temperature"), config.default_temperature)
    return messages, model, temperature


def _relay_fragments(fragments, model):
    # one write per non-empty fragment, no buffering
    sent = 0
    try:
        for fragment in fragments:
            if not fragment:
                continue
            data = fragment.encode("utf-8")
            sent += len(data)
            yield data
    except Exception:
        log.exception("Chat relay stream aborted | model=%s after %d bytes", model, sent)
        raise
    log.info("Chat relay stream end | model=%s %d bytes", model, sent)


# ---------- Simple health check ----------
@api_view(["GET"])
def health(request):
    config = get_relay_config()
    return Response({
        "status": "ok",
        "app": "chatrelay",
        "provider_configured": config.has_credentials,
    })


# ---------- API: streaming chat relay ----------
@csrf_exempt
def chat_stream(request):
    if request.method != "POST":
        return JsonResponse({"error": "POST required"}, status=405)

    config = get_relay_config()
    if not config.has_credentials:
        return JsonResponse({"error": "Missing OPENAI_API_KEY environment variable."}, status=500)

    try:
        data = json.loads(request.body or b"")
    except ValueError:
        # JSONDecodeError, undecodable bytes, or an integer past the digit limit
        return JsonResponse({"error": "Invalid JSON payload received."}, status=400)

    ser = ChatRequestSerializer(data=data)
    if not ser.is_valid():
        return JsonResponse({"error": describe_errors(ser.errors)}, status=400)

    messages, model, temperature = _build_provider_request(ser.validated_data, config)

    try:
        t0 = time.time()
        fragments = get_provider(config).stream_completion(messages, model, temperature)
        dt_ms = (time.time() - t0) * 1000.0
    except Exception as exc:
        log.exception("Chat route error: %s", type(exc).__name__)
        return JsonResponse({"error": GENERIC_PROVIDER_ERROR}, status=500)

    log.info("Chat relay stream start %.0fms | model=%s temperature=%.2f turns=%d prompt=%s",
             dt_ms,
             model,
             temperature,
             len(messages),
             Truncator(messages[-1]["content"]).chars(120))

    resp = StreamingHttpResponse(_relay_fragments(fragments, model), content_type="text/plain; charset=utf-8")
    resp["Cache-Control"] = "no-cache, no-transform"
    resp["X-Accel-Buffering"] = "no"
    return resp
