# wsdl_soap/models.py
from pydantic import BaseModel
from typing import Dict, List, Optional

class OperationInfo(BaseModel):
    name: str
    identifier: str
    soapAction: Optional[str] = None
    inputTag: str
    style: str
    endpoint: Optional[str] = None

class OperationsResponse(BaseModel):
    serviceName: Optional[str] = None
    targetNamespace: Optional[str] = None
    endpoint: Optional[str] = None
    operations: Optional[List[OperationInfo]] = None
    errorMessage: Optional[str] = None

class RequestPreview(BaseModel):
    url: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    body: Optional[str] = None
    errorMessage: Optional[str] = None
