"""Asset pipelines that process marked elements of an HTML page and rewrite them in the output."""