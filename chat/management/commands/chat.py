import asyncio

from django.conf import settings
from django.core.management.base import BaseCommand

from chat.transcript import Role, Status, Transcript


class _StreamPrinter:
    """Writes only the newly arrived tail of the pending reply."""

    def __init__(self, stdout):
        self.stdout = stdout
        self.message_id = None
        self.shown = 0

    def __call__(self, transcript):
        last = transcript.messages[-1]
        if last.role is not Role.ASSISTANT or last.status is not Status.PENDING:
            return
        if last.id != self.message_id:
            self.message_id = last.id
            self.shown = 0
        # the stored reply is trimmed, so never show leading or trailing whitespace
        text = last.content.strip()
        tail = text[self.shown:]
        if tail:
            self.stdout.write(tail, ending="")
            self.stdout.flush()
            self.shown = len(text)


class Command(BaseCommand):
    help = "Chat with the relay endpoint from the terminal (/reset starts over, /quit exits)"

    def add_arguments(self, parser):
        parser.add_argument("--url", default=None, help="Relay endpoint, defaults to CHAT_ENDPOINT_URL")

    def handle(self, *args, **options):
        url = options["url"] or settings.CHAT_ENDPOINT_URL
        asyncio.run(self._run(url))

    async def _run(self, url):
        transcript = Transcript(url)
        printer = _StreamPrinter(self.stdout)
        transcript.subscribe(printer)
        self._show_history(transcript)

        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break
            command = line.strip()
            if command == "/quit":
                break
            if command == "/reset":
                transcript.reset()
                self._show_history(transcript)
                continue
            if not command:
                continue

            self.stdout.write("ai> ", ending="")
            await transcript.submit(line)
            self._finish_reply(transcript, printer)

    def _show_history(self, transcript):
        for message in transcript.messages:
            label = "you" if message.role is Role.USER else "ai"
            self.stdout.write(f"{label}> {message.content}")

    def _finish_reply(self, transcript, printer):
        last = transcript.messages[-1]
        if last.status is Status.ERROR:
            if printer.message_id != last.id or not printer.shown:
                self.stdout.write(last.content, ending="")
            self.stdout.write("")
            self.stderr.write(transcript.error or "")
            return
        self.stdout.write("")
