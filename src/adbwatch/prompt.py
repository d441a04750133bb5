import asyncio
import logging
import sys

logger = logging.getLogger(__name__)


class Prompter:
    """
    Asks questions on the terminal and reads the answers without blocking the event loop.

    :param reader: an asyncio.StreamReader providing the lines typed. See open_stdin()
    :param output: where the questions are written.
    """
    def __init__(self, reader, output=None):
        self.reader = reader
        self.output = output if output is not None else sys.stdout
        self.closed = False
        self.transport = None

    @classmethod
    async def open_stdin(cls, stdin=None, output=None):
        """ creates a prompter reading from standard input. """
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader()
        transport, _ = await loop.connect_read_pipe(lambda: asyncio.StreamReaderProtocol(reader),
                                                    stdin or sys.stdin)
        prompter = cls(reader, output)
        prompter.transport = transport
        return prompter

    async def ask(self, question):
        """
        Writes the question and waits for a line of input.
        :return: the line typed, without the line ending. An empty string once input is closed.
        """
        if self.closed:
            return ''
        self.output.write(question)
        self.output.flush()
        line = await self.reader.readline()
        if not line:
            self.closed = True
        return line.decode(errors='replace').rstrip('\r\n')

    async def ask_choice(self, question, mapping, default=None):
        """
        Asks until the first letter of the answer is one of the mapping keys.
        An empty answer picks the default, if there is one.
        Once input is closed nothing is chosen and None is returned.
        :param mapping: a dict of single letter answers to the value returned.
        """
        valid = list(mapping)
        while True:
            answer = (await self.ask(question)).strip().lower()
            if self.closed and not answer:
                return None
            if not answer and default:
                return mapping[default]
            if answer and answer[0] in mapping:
                return mapping[answer[0]]
            if self.closed:
                return None
            self.output.write("Please pick one of: %s.\n" % ", ".join(valid))

    def close(self):
        self.closed = True
        self.reader.feed_eof()
        if self.transport is not None:
            self.transport.close()
            self.transport = None
