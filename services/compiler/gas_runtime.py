"""
Static Apps Script source shared by every compiled bundle.
"""

HELPERS_GS = r"""/**
 * Runtime helpers shared by every entry point.
 */

var PLACEHOLDER_PATTERN_ = /\{\{\s*([A-Za-z_][\w\-]*)((?:\.[A-Za-z_$][\w\-$]*|\[\d+\])*)\s*\}\}/g;

function createContext_(triggerId, event) {
  return {
    workflowId: WORKFLOW_ID,
    executionId: Utilities.getUuid(),
    triggerId: triggerId,
    event: event,
    outputs: {},
    halted: false,
    startedAt: new Date().toISOString()
  };
}

/**
 * Runs steps in order, storing each return value under its node id.
 * A step sets ctx.halted to end the run early (e.g. a filter that fails).
 */
function runSteps_(ctx, nodeIds) {
  for (var i = 0; i < nodeIds.length; i++) {
    var nodeId = nodeIds[i];
    try {
      ctx.outputs[nodeId] = STEPS_[nodeId](ctx);
    } catch (error) {
      console.error('Node ' + nodeId + ' failed: ' + error.message);
      throw error;
    }
    if (ctx.halted) {
      console.log('Run ' + ctx.executionId + ' stopped after ' + nodeId);
      break;
    }
  }
  return { executionId: ctx.executionId, halted: ctx.halted, outputs: ctx.outputs };
}

/**
 * Reads "a.b[0].c" out of a value; missing segments give null.
 */
function getPath_(value, path) {
  if (!path) return value === undefined ? null : value;
  var segments = String(path).replace(/\[(\d+)\]/g, '.$1').split('.');
  var current = value;
  for (var i = 0; i < segments.length; i++) {
    if (segments[i] === '') continue;
    if (current === null || current === undefined) return null;
    current = current[segments[i]];
  }
  return current === undefined ? null : current;
}

function toText_(value) {
  if (value === null || value === undefined) return '';
  if (typeof value === 'object') return JSON.stringify(value);
  return String(value);
}

function parseJsonSafe_(value) {
  if (typeof value !== 'string') return value;
  try {
    return JSON.parse(value);
  } catch (e) {
    return value;
  }
}

/**
 * Evaluates a boolean expression after substituting placeholders with
 * JSON literals of the referenced outputs.
 */
function evaluateExpression_(expression, ctx) {
  var resolved = expression.replace(PLACEHOLDER_PATTERN_, function(match, nodeId, path) {
    return JSON.stringify(getPath_(ctx.outputs[nodeId], path.replace(/^\./, '')));
  });
  try {
    return Boolean(new Function('return (' + resolved + ');')());
  } catch (e) {
    console.warn('Expression failed: ' + expression + ' (' + e.message + ')');
    return false;
  }
}

function getStore_() {
  return PropertiesService.getScriptProperties();
}

function isProcessed_(key) {
  return getStore_().getProperty('processed_' + key) !== null;
}

function markProcessed_(key) {
  getStore_().setProperty('processed_' + key, new Date().toISOString());
}

function getSetting_(name, fallback) {
  var value = getStore_().getProperty(name);
  return value === null ? (fallback === undefined ? null : fallback) : value;
}

/**
 * Calls a connector app's API: POST {baseUrl}/{operation} with the params as JSON.
 * The base URL comes from the <APP>_BASE_URL script property.
 */
function callConnector_(app, operation, params, secretName) {
  var settingName = String(app).toUpperCase().replace(/[^A-Z0-9]+/g, '_') + '_BASE_URL';
  var baseUrl = getSetting_(settingName);
  if (!baseUrl) throw new Error('Set the ' + settingName + ' script property to call ' + app);
  var headers = {};
  if (secretName) headers.Authorization = 'Bearer ' + getSecret_(secretName);
  var response = UrlFetchApp.fetch(baseUrl.replace(/\/$/, '') + '/' + operation, {
    method: 'post',
    contentType: 'application/json',
    headers: headers,
    payload: JSON.stringify(params || {}),
    muteHttpExceptions: true
  });
  var status = response.getResponseCode();
  if (status >= 400) throw new Error(app + ' ' + operation + ' failed with HTTP ' + status);
  return parseJsonSafe_(response.getContentText());
}

function parseRequestBody_(e) {
  if (!e || !e.postData || !e.postData.contents) return {};
  var parsed = parseJsonSafe_(e.postData.contents);
  return typeof parsed === 'object' && parsed !== null ? parsed : { raw: parsed };
}

function jsonResponse_(payload) {
  return ContentService.createTextOutput(JSON.stringify(payload)).setMimeType(ContentService.MimeType.JSON);
}
"""

GET_SECRET_GS = r"""function getSecret_(name) {
  var value = PropertiesService.getScriptProperties().getProperty(name);
  if (!value) throw new Error('Missing secret "' + name + '": set it under Project Settings > Script properties');
  return value;
}

/**
 * Lists declared secrets that have no value yet. Run after deployment.
 */
function checkSecrets() {
  var missing = Object.keys(SECRETS_).filter(function(name) {
    return !PropertiesService.getScriptProperties().getProperty(name);
  });
  if (missing.length) console.warn('Missing secrets: ' + missing.join(', '));
  return missing;
}
"""
