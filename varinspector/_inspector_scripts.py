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
"""Introspection sources injected into kernels.

Everything defined here runs inside the user's kernel, so all helpers use
underscore-prefixed names: IPython's `who_ls` hides them from the listing, and
they do not collide with user variables.

Each listing returns a JSON array of objects with the keys `varName`,
`varType`, `varSize`, `varShape`, `varContent` and `isMatrix`. Each matrix query
returns JSON table-schema text (`{"schema": {"fields": ...}, "data": [...]}`).
"""

# The listing only looks at libraries the user already imported; importing
# tensorflow or pyspark just to check isinstance would dominate the cost.
PYTHON_INIT_SCRIPT = r'''
import json as _varinspector_json
import sys as _varinspector_sys

from IPython import get_ipython as _varinspector_get_ipython
from IPython.core.magics.namespace import NamespaceMagics as _VarInspectorNamespaceMagics

_varinspector_nms = _VarInspectorNamespaceMagics()
_varinspector_nms.shell = _varinspector_get_ipython()

_VARINSPECTOR_CONTENT_LIMIT = 150


def _varinspector_module(name):
    return _varinspector_sys.modules.get(name)


def _varinspector_getsizeof(x):
    pd = _varinspector_module('pandas')
    spark_sql = _varinspector_module('pyspark.sql')
    tf = _varinspector_module('tensorflow')
    if type(x).__name__ in ['ndarray', 'Series']:
        return x.nbytes
    if spark_sql and isinstance(x, spark_sql.DataFrame):
        return '?'
    if tf and isinstance(x, tf.Variable):
        return '?'
    if pd and isinstance(x, pd.DataFrame):
        return x.memory_usage().sum()
    return _varinspector_sys.getsizeof(x)


def _varinspector_getshapeof(x):
    pd = _varinspector_module('pandas')
    np = _varinspector_module('numpy')
    spark_sql = _varinspector_module('pyspark.sql')
    tf = _varinspector_module('tensorflow')
    if pd and isinstance(x, pd.DataFrame):
        return 'DataFrame [%d rows x %d cols]' % x.shape
    if pd and isinstance(x, pd.Series):
        return 'Series [%d rows]' % x.shape
    if np and isinstance(x, np.ndarray):
        return 'Array [%s]' % ' x '.join(str(i) for i in x.shape)
    if spark_sql and isinstance(x, spark_sql.DataFrame):
        return 'Spark DataFrame [? rows x %d cols]' % len(x.columns)
    if tf and isinstance(x, tf.Variable):
        return 'Tensorflow Variable [%s]' % ' x '.join(
            str(int(i)) for i in x.shape)
    return None


def _varinspector_getcontentof(x):
    pd = _varinspector_module('pandas')
    np = _varinspector_module('numpy')
    if pd and isinstance(x, pd.DataFrame):
        content = 'Column names: %s' % ', '.join(x.columns.map(str))
    elif pd and isinstance(x, pd.Series):
        content = 'Series [%d rows]' % x.shape
    elif np and isinstance(x, np.ndarray):
        content = repr(x)
    else:
        content = str(x)
    if len(content) > _VARINSPECTOR_CONTENT_LIMIT:
        return content[:_VARINSPECTOR_CONTENT_LIMIT] + ' ...'
    return content


def _varinspector_is_matrix(x):
    pd = _varinspector_module('pandas')
    np = _varinspector_module('numpy')
    spark_sql = _varinspector_module('pyspark.sql')
    tf = _varinspector_module('tensorflow')
    if pd and isinstance(x, (pd.DataFrame, pd.Series)):
        return True
    if np and isinstance(x, np.ndarray) and 1 <= x.ndim <= 2:
        return True
    if spark_sql and isinstance(x, spark_sql.DataFrame):
        return True
    if tf and isinstance(x, tf.Variable) and 1 <= len(x.shape) <= 2:
        return True
    return False


def _varinspector_keep(x):
    pd = _varinspector_module('pandas')
    tf = _varinspector_module('tensorflow')
    if isinstance(x, str):
        return True
    if tf and isinstance(x, tf.Variable):
        return True
    if pd and isinstance(x, (pd.DataFrame, pd.Series)):
        return True
    try:
        text = str(x)
    except Exception:
        return False
    # Modules, functions, classes and objects without a useful str().
    if text.startswith('<'):
        return False
    # tf/keras feature columns.
    if text.startswith('_Feature'):
        return False
    return True


def _varinspector_dict_list():
    user_ns = _varinspector_nms.shell.user_ns
    variables = []
    for name in _varinspector_nms.who_ls():
        obj = user_ns[name]
        if not _varinspector_keep(obj):
            continue
        shape = _varinspector_getshapeof(obj)
        variables.append({
            'varName': name,
            'varType': type(obj).__name__,
            'varSize': str(_varinspector_getsizeof(obj)),
            'varShape': str(shape) if shape else '',
            'varContent': str(_varinspector_getcontentof(obj)),
            'isMatrix': bool(_varinspector_is_matrix(obj)),
        })
    return _varinspector_json.dumps(variables, ensure_ascii=False)


def _varinspector_default(o):
    np = _varinspector_module('numpy')
    if np and isinstance(o, np.generic):
        return o.item()
    return str(o)


def _varinspector_rename_clashing_index(x, columns):
    # to_json(orient='table') refuses index names that are also column names,
    # e.g. the 'index' column added by reset_index().
    nlevels = x.index.nlevels
    defaults = ['index'] if nlevels == 1 else [
        'level_%d' % i for i in range(nlevels)]
    names = [d if n is None else str(n)
             for n, d in zip(x.index.names, defaults)]
    if not any(name in columns for name in names):
        return
    if nlevels == 1:
        x.index = x.index.set_names(['__varinspector_index__'])
    else:
        x.index = x.index.set_names(
            ['__varinspector_index_%d__' % i for i in range(nlevels)])


def _varinspector_matrix_json(x, max_rows):
    spark_sql = _varinspector_module('pyspark.sql')
    tf = _varinspector_module('tensorflow')
    np = _varinspector_module('numpy')
    if spark_sql and isinstance(x, spark_sql.DataFrame):
        return _varinspector_matrix_json(x.limit(max_rows).toPandas(), max_rows)
    if (tf and isinstance(x, (tf.Variable, tf.Tensor))
            and 1 <= len(x.shape) <= 2):
        return _varinspector_matrix_json(x.numpy(), max_rows)
    try:
        import pandas as pd
    except ImportError:
        raise TypeError(
            'pandas is required to inspect %s as a matrix' % type(x).__name__)
    if isinstance(x, pd.DataFrame):
        x = x.head(max_rows).copy()
        x.columns = x.columns.map(str)
        columns = set(x.columns)
    elif isinstance(x, pd.Series):
        x = x.head(max_rows).copy()
        columns = {'values' if x.name is None else str(x.name)}
    else:
        columns = None
    if columns is not None:
        _varinspector_rename_clashing_index(x, columns)
        return x.to_json(orient='table', default_handler=_varinspector_default,
                         force_ascii=False)
    if np and isinstance(x, np.ndarray) and 1 <= x.ndim <= 2:
        return _varinspector_matrix_json(pd.DataFrame(x), max_rows)
    if isinstance(x, list):
        return _varinspector_matrix_json(pd.Series(x), max_rows)
    raise TypeError('%s is not matrix-shaped' % type(x).__name__)


def _varinspector_getmatrixcontent(name, max_rows=10000):
    user_ns = _varinspector_nms.shell.user_ns
    if name not in user_ns:
        raise NameError('name %r is not defined' % name)
    return _varinspector_matrix_json(user_ns[name], max_rows)
'''

PYTHON_QUERY_COMMAND = '_varinspector_dict_list()'

PYTHON_MATRIX_QUERY_COMMAND = (
    '_varinspector_getmatrixcontent({name}, max_rows={max_rows})'
)

R_INIT_SCRIPT = r'''
library(jsonlite)

.varinspector_list <- function() {
  names <- ls(envir = .GlobalEnv)
  rows <- lapply(names, function(name) {
    x <- get(name, envir = .GlobalEnv)
    dims <- dim(x)
    shape <- if (is.null(dims)) as.character(length(x)) else paste(dims, collapse = " x ")
    content <- if (is.function(x)) {
      "function"
    } else {
      tryCatch(toString(x, width = 154), error = function(e) class(x)[1])
    }
    if (!is.null(rownames(x))) {
      content <- paste("Row names:", toString(rownames(x), width = 154))
    }
    list(
      varName = name,
      varType = class(x)[1],
      varSize = format(object.size(x), units = "auto"),
      varShape = shape,
      varContent = content,
      isMatrix = is.matrix(x) || is.data.frame(x)
    )
  })
  jsonlite::toJSON(rows, auto_unbox = TRUE)
}

.varinspector_matrix <- function(name, max_rows = 10000) {
  if (!exists(name, envir = .GlobalEnv, inherits = FALSE)) {
    stop(paste0("object '", name, "' not found"))
  }
  x <- get(name, envir = .GlobalEnv)
  if (!(is.matrix(x) || is.data.frame(x))) {
    stop(paste0("'", name, "' is not matrix-shaped"))
  }
  df <- as.data.frame(head(x, max_rows))
  columns <- as.character(colnames(df))
  colnames(df) <- columns
  df <- cbind(data.frame(index = rownames(df), stringsAsFactors = FALSE), df)
  fields <- lapply(c("index", columns), function(n) list(name = n))
  jsonlite::toJSON(
    list(schema = list(fields = fields, primaryKey = list("index")), data = df),
    auto_unbox = TRUE, dataframe = "rows")
}
'''

R_QUERY_COMMAND = '.varinspector_list()'

R_MATRIX_QUERY_COMMAND = '.varinspector_matrix({name}, max_rows = {max_rows})'
