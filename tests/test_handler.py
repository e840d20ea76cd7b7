# Copyright 2019 Google Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tests for varinspector.handler."""

import asyncio
import unittest

import fake_session
import pandas as pd
from varinspector import errors
from varinspector import handler
from varinspector import inspectable
from varinspector import kernelconnector
from varinspector import sessions


async def _spin(times=10):
  for _ in range(times):
    await asyncio.sleep(0)


def _table_reply(frame):
  return fake_session.text_reply(repr(frame.to_json(orient='table')))


class ParseTest(unittest.TestCase):

  def testParseListingFromRepr(self):
    reply = fake_session.json_reply([
        fake_session.variable('x', content='1'),
        fake_session.variable('df', type_='DataFrame', isMatrix=True),
    ])
    payload = handler.parse_listing(reply)
    self.assertEqual(['x', 'df'], [v.name for v in payload])
    self.assertEqual('1', payload[0].content)
    self.assertFalse(payload[0].is_matrix)
    self.assertTrue(payload[1].is_matrix)

  def testParseListingFromPrintedJson(self):
    reply = sessions.ExecuteReply(
        status='ok',
        outputs=[{
            'output_type': 'stream',
            'name': 'stdout',
            'text': '[{"varName": "a", "varSize": 56}]\n',
        }],
    )
    payload = handler.parse_listing(reply)
    self.assertEqual('a', payload[0].name)
    self.assertEqual('56', payload[0].size)
    self.assertEqual('', payload[0].shape)

  def testParseListingFromSplitRepr(self):
    reply = fake_session.text_reply('(\'[{"varName": \'\n \'"a"}]\')')
    self.assertEqual('a', handler.parse_listing(reply)[0].name)

  def testParseListingErrors(self):
    for reply in (
        sessions.ExecuteReply(status='ok'),
        fake_session.text_reply('not json'),
        fake_session.text_reply("'not json either'"),
        fake_session.json_reply({'varName': 'x'}),
        fake_session.json_reply([{'name': 'x'}]),
    ):
      with self.assertRaises(errors.ReplyParseError):
        handler.parse_listing(reply)

  def testParseMatrix(self):
    frame = pd.DataFrame({'a': [1, 2], 'b': ['x', 'y']})
    result = handler.parse_matrix(_table_reply(frame))
    self.assertEqual(['a', 'b'], list(result.columns))
    self.assertEqual([0, 1], list(result.index))
    self.assertIsNone(result.index.name)
    self.assertEqual([1, 2], result['a'].tolist())
    self.assertEqual(['x', 'y'], result['b'].tolist())

  def testParseMatrixWithoutSchema(self):
    reply = fake_session.json_reply({'data': [{'u': 1, 'v': 2}]})
    result = handler.parse_matrix(reply)
    self.assertEqual(['u', 'v'], list(result.columns))
    self.assertEqual((1, 2), result.shape)

  def testParseMatrixPlaceholderIndexNames(self):
    reply = fake_session.json_reply({
        'schema': {
            'fields': [
                {'name': '__varinspector_index__'},
                {'name': 'index'},
                {'name': 'a'},
            ],
            'primaryKey': ['__varinspector_index__'],
        },
        'data': [{'__varinspector_index__': 0, 'index': 7, 'a': 3}],
    })
    result = handler.parse_matrix(reply)
    self.assertIsNone(result.index.name)
    self.assertEqual(['index', 'a'], list(result.columns))
    self.assertEqual([7], result['index'].tolist())

  def testParseMatrixMultiIndex(self):
    frame = pd.DataFrame(
        {'a': [1, 2]},
        index=pd.MultiIndex.from_tuples([('x', 1), ('y', 2)]),
    )
    result = handler.parse_matrix(_table_reply(frame))
    self.assertEqual([None, None], list(result.index.names))
    self.assertEqual([1, 2], result['a'].tolist())

  def testParseMatrixNamedIndex(self):
    reply = fake_session.json_reply({
        'schema': {
            'fields': [{'name': 'key'}, {'name': 'value'}],
            'primaryKey': ['key'],
        },
        'data': [{'key': 'k', 'value': 3}],
    })
    result = handler.parse_matrix(reply)
    self.assertEqual('key', result.index.name)
    self.assertEqual(3, result.loc['k', 'value'])

  def testParseMatrixErrors(self):
    for reply in (
        fake_session.json_reply([1, 2]),
        fake_session.json_reply({'schema': {}}),
        fake_session.text_reply('nope'),
    ):
      with self.assertRaises(errors.ReplyParseError):
        handler.parse_matrix(reply)


class VariableInspectionHandlerTest(unittest.IsolatedAsyncioTestCase):

  async def asyncSetUp(self):
    await super().asyncSetUp()
    self.updates = []
    self.session, self.handler = self.start(fake_session.FakeSession())

  def start(self, session, connector_timeout=None, **kwargs):
    self.connector = kernelconnector.KernelConnector(
        session, timeout=connector_timeout
    )
    inspection_handler = handler.VariableInspectionHandler(
        self.connector,
        fake_session.INIT_SCRIPT,
        fake_session.QUERY_COMMAND,
        fake_session.MATRIX_QUERY_COMMAND,
        id=session.path,
        **kwargs
    )
    inspection_handler.inspected.connect(
        lambda sender, update: self.updates.append(update)
    )
    return session, inspection_handler

  def gated_session(self, path='gated.ipynb'):
    session = fake_session.FakeSession(path=path)
    session.handshake_gate = asyncio.Event()
    session.execute_gate = asyncio.Event()
    return session

  async def testInitializes(self):
    session, gated = self.start(self.gated_session())
    self.assertEqual(handler.HandlerState.AWAITING_CONNECTOR, gated.state)
    session.handshake_gate.set()
    await _spin()
    self.assertEqual(handler.HandlerState.RUNNING_INIT, gated.state)
    self.assertEqual([fake_session.INIT_SCRIPT], session.executed)
    session.execute_gate.set()
    await gated.ready
    self.assertEqual(handler.HandlerState.READY, gated.state)

  async def testEmitsOnlyOnChange(self):
    await self.handler.ready
    self.session.variables = [fake_session.variable('x', content='1')]
    await self.handler.perform_inspection()
    self.assertEqual(1, len(self.updates))
    update = self.updates[0]
    self.assertEqual(['x'], [v.name for v in update.payload])
    self.assertEqual(
        inspectable.KernelInfo(kernel_name='python3', language_name='python'),
        update.info,
    )

    await self.handler.perform_inspection()
    self.assertEqual(1, len(self.updates))

    self.session.variables = [
        fake_session.variable('x', content='1'),
        fake_session.variable('y', type_='str', content='hi'),
    ]
    await self.handler.perform_inspection()
    self.assertEqual(2, len(self.updates))
    self.assertEqual(['x', 'y'], [v.name for v in self.updates[1].payload])

  async def testEmptyListingIsEmittedOnce(self):
    await self.handler.perform_inspection()
    await self.handler.perform_inspection()
    self.assertEqual(1, len(self.updates))
    self.assertEqual((), self.updates[0].payload)

  async def testInspectionWaitsForInit(self):
    session, gated = self.start(self.gated_session())
    inspection = asyncio.ensure_future(gated.perform_inspection())
    session.handshake_gate.set()
    await _spin()
    self.assertEqual([fake_session.INIT_SCRIPT], session.executed)
    session.execute_gate.set()
    await inspection
    self.assertEqual(
        [fake_session.INIT_SCRIPT, fake_session.QUERY_COMMAND],
        session.executed,
    )
    self.assertEqual(1, len(self.updates))

  async def testInitFailureStillBecomesReady(self):
    session = fake_session.FakeSession(path='broken.ipynb')
    session.replies[fake_session.INIT_SCRIPT] = fake_session.error_reply(
        'ImportError', 'no module named pandas'
    )
    with self.assertLogs('varinspector.handler', level='WARNING'):
      _, broken = self.start(session)
      await broken.ready
    self.assertEqual(handler.HandlerState.READY, broken.state)

  async def testRestartRerunsInit(self):
    await self.handler.ready
    self.session.variables = [fake_session.variable('x')]
    await self.handler.perform_inspection()
    self.session.execute_gate = asyncio.Event()
    self.session.notify_restarted()
    self.assertEqual(handler.HandlerState.RUNNING_INIT, self.handler.state)
    inspection = asyncio.ensure_future(self.handler.perform_inspection())
    await _spin()
    self.assertEqual(
        [
            fake_session.INIT_SCRIPT,
            fake_session.QUERY_COMMAND,
            fake_session.INIT_SCRIPT,
        ],
        self.session.executed,
    )
    self.session.execute_gate.set()
    await inspection
    self.assertEqual(fake_session.QUERY_COMMAND, self.session.executed[-1])
    self.assertEqual(handler.HandlerState.READY, self.handler.state)

  async def testRestartBeforeHandshakeRunsInitOnce(self):
    session, gated = self.start(self.gated_session())
    session.notify_restarted()
    session.handshake_gate.set()
    session.execute_gate.set()
    await gated.ready
    self.assertEqual([fake_session.INIT_SCRIPT], session.executed)

  async def testConcurrentInspectionsCoalesce(self):
    await self.handler.ready
    self.session.execute_gate = asyncio.Event()
    first = asyncio.ensure_future(self.handler.perform_inspection())
    await _spin()
    later = [
        asyncio.ensure_future(self.handler.perform_inspection())
        for _ in range(3)
    ]
    await _spin()
    self.assertFalse(any(task.done() for task in later))
    self.session.execute_gate.set()
    await asyncio.gather(first, *later)
    self.assertEqual(
        2, self.session.executed.count(fake_session.QUERY_COMMAND)
    )

  async def testRequestsBeforeQueryShareIt(self):
    await self.handler.ready
    self.session.variables = [fake_session.variable('x')]
    await asyncio.gather(
        self.handler.perform_inspection(), self.handler.perform_inspection()
    )
    self.assertEqual(
        1, self.session.executed.count(fake_session.QUERY_COMMAND)
    )
    self.assertEqual(1, len(self.updates))

  async def testMatrixInspectionTimeout(self):
    session = fake_session.FakeSession(path='slow.ipynb')
    _, slow = self.start(session, connector_timeout=0.01)
    await slow.ready
    session.execute_gate = asyncio.Event()
    with self.assertRaises(errors.MatrixInspectionError) as cm:
      await slow.perform_matrix_inspection('df')
    self.assertIsInstance(cm.exception.__cause__, asyncio.TimeoutError)

  async def testQueryFailureIsLogged(self):
    await self.handler.ready
    self.session.replies[fake_session.QUERY_COMMAND] = (
        fake_session.error_reply('NameError', 'name is not defined')
    )
    with self.assertLogs('varinspector.handler', level='WARNING'):
      await self.handler.perform_inspection()
    self.assertEqual([], self.updates)

  async def testMalformedListingIsLogged(self):
    await self.handler.ready
    self.session.replies[fake_session.QUERY_COMMAND] = (
        fake_session.text_reply('garbage')
    )
    with self.assertLogs('varinspector.handler', level='WARNING'):
      await self.handler.perform_inspection()
    self.assertEqual([], self.updates)

  async def testMatrixInspection(self):
    self.session.replies['matrix("df", 10000)'] = _table_reply(
        pd.DataFrame({'a': [1, 2, 3]})
    )
    result = await self.handler.perform_matrix_inspection('df')
    self.assertEqual([1, 2, 3], result['a'].tolist())
    self.assertEqual([], self.updates)

  async def testMatrixInspectionRowLimit(self):
    reply = _table_reply(pd.DataFrame({'a': [1]}))
    for code in ('matrix("df", 5)', 'matrix("df", 2)', 'matrix("df", 7)'):
      self.session.replies[code] = reply
    self.handler.max_rows = 5
    await self.handler.perform_matrix_inspection('df')
    self.assertEqual('matrix("df", 5)', self.session.executed[-1])
    await self.handler.perform_matrix_inspection('df', max_rows=2)
    self.assertEqual('matrix("df", 2)', self.session.executed[-1])
    _, limited = self.start(self.session, max_rows=7)
    await limited.perform_matrix_inspection('df')
    self.assertEqual('matrix("df", 7)', self.session.executed[-1])

  async def testMatrixInspectionOfMissingVariable(self):
    self.session.replies['matrix("nope", 10000)'] = fake_session.error_reply(
        'NameError', "name 'nope' is not defined"
    )
    with self.assertRaises(errors.MatrixInspectionError) as cm:
      await self.handler.perform_matrix_inspection('nope')
    self.assertIn('nope', str(cm.exception))
    self.assertIsInstance(cm.exception.__cause__, errors.ExecutionError)

  async def testMatrixInspectionOfScalar(self):
    self.session.replies['matrix("x", 10000)'] = fake_session.error_reply(
        'TypeError', 'int is not matrix-shaped'
    )
    with self.assertRaises(errors.MatrixInspectionError):
      await self.handler.perform_matrix_inspection('x')

  async def testDispose(self):
    await self.handler.ready
    disposals = []
    self.handler.disposed.connect(lambda sender, args: disposals.append(1))
    self.handler.dispose()
    self.handler.dispose()
    self.assertEqual([1], disposals)
    self.assertTrue(self.handler.is_disposed)
    self.assertEqual(handler.HandlerState.DISPOSED, self.handler.state)

    executed = list(self.session.executed)
    await self.handler.perform_inspection()
    self.session.notify_restarted()
    await _spin()
    self.assertEqual(executed, self.session.executed)
    with self.assertRaises(errors.DisposedError):
      await self.handler.perform_matrix_inspection('df')

  async def testDisposeWakesWaitingInspection(self):
    _, gated = self.start(self.gated_session())
    inspection = asyncio.ensure_future(gated.perform_inspection())
    await _spin()
    gated.dispose()
    await inspection
    self.assertTrue(gated.ready.cancelled())
    self.assertEqual([], self.updates)

  async def testSessionDisposalDisposesHandler(self):
    await self.handler.ready
    self.session.dispose()
    self.assertTrue(self.connector.is_disposed)
    self.assertTrue(self.handler.is_disposed)


class DummyHandlerTest(unittest.IsolatedAsyncioTestCase):

  async def asyncSetUp(self):
    await super().asyncSetUp()
    self.session = fake_session.FakeSession(language='cobol')
    self.connector = kernelconnector.KernelConnector(self.session)
    await self.connector.ready
    self.handler = handler.DummyHandler(self.connector)

  async def testNeverInspects(self):
    updates = []
    self.handler.inspected.connect(lambda sender, args: updates.append(args))
    self.assertTrue(self.handler.ready.done())
    self.assertEqual('notebook.ipynb', self.handler.id)
    await self.handler.perform_inspection()
    self.assertEqual([], updates)
    self.assertEqual([], self.session.executed)

  async def testMatrixInspectionFails(self):
    with self.assertRaises(errors.MatrixInspectionError):
      await self.handler.perform_matrix_inspection('df')
    self.handler.dispose()
    with self.assertRaises(errors.DisposedError):
      await self.handler.perform_matrix_inspection('df')

  async def testDisposedWithConnector(self):
    disposals = []
    self.handler.disposed.connect(lambda sender, args: disposals.append(1))
    self.session.dispose()
    self.assertTrue(self.handler.is_disposed)
    self.assertEqual([1], disposals)


if __name__ == '__main__':
  unittest.main()
