# wsdl_soap/main.py
import json
import logging
import os
from typing import Optional

from fastapi import FastAPI, File, Form, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from .config import GlobalOptions
from .exceptions import SoapError
from .loader import InlineDocumentLoader
from .models import OperationInfo, OperationsResponse, RequestPreview
from .operation import Operation
from .wsdl_parser import WsdlDocument, load_wsdl

logger = logging.getLogger(__name__)

CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost").split(",")

app = FastAPI(title="WSDL SOAP Inspector API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _operation_info(wsdl: WsdlDocument, identifier: str) -> OperationInfo:
    operation = wsdl.operations[identifier]
    return OperationInfo(
        name=operation.name,
        identifier=identifier,
        soapAction=operation.soap_action,
        inputTag=wsdl.input_tag(identifier),
        style=operation.style,
        endpoint=wsdl.endpoint_for(identifier),
    )


@app.get("/api/health")
def health_check():
    return {"status": "ok"}


@app.post("/api/operations", response_model=OperationsResponse)
async def list_operations(wsdl_file: UploadFile = File(...)):
    """
    Parses an uploaded WSDL and returns its operation catalog.
    """
    try:
        wsdl = load_wsdl(await wsdl_file.read(), InlineDocumentLoader())
    except SoapError as e:
        logger.info(f"Rejected WSDL upload {wsdl_file.filename}: {e}")
        return OperationsResponse(errorMessage=f"Failed to parse WSDL: {e}")

    return OperationsResponse(
        serviceName=wsdl.service_name,
        targetNamespace=wsdl.target_namespace,
        endpoint=wsdl.endpoint,
        operations=[_operation_info(wsdl, identifier) for identifier in sorted(wsdl.operations)],
    )


@app.post("/api/requests", response_model=RequestPreview)
async def preview_request(
    wsdl_file: UploadFile = File(...),
    operation: str = Form(...),
    message: str = Form("{}"),
    endpoint: Optional[str] = Form(None),
):
    """
    Builds the request a call to ``operation`` would send, without sending it.
    ``message`` is a JSON object; key order is kept as element order.
    """
    try:
        params = json.loads(message)
    except json.JSONDecodeError as e:
        return RequestPreview(errorMessage=f"Failed to parse message JSON: {e}")

    try:
        wsdl = load_wsdl(await wsdl_file.read(), InlineDocumentLoader())
        options = GlobalOptions(endpoint=endpoint) if endpoint else GlobalOptions()
        request = Operation.create(operation, wsdl, options).request(message=params)
    except SoapError as e:
        return RequestPreview(errorMessage=str(e))

    return RequestPreview(
        url=request.url,
        headers=request.headers,
        body=request.body.decode("utf-8"),
    )
